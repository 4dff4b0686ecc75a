# passvault/client/views/register.py
import flet as ft

from passvault.client.state import AppContext
from passvault.client.views.widgets import strength_text, update_strength
from passvault.core.errors import PassVaultError, user_message

MIN_FORM_PASSWORD_LENGTH = 8


def RegisterView(page: ft.Page, ctx: AppContext):
    name_tf = ft.TextField(label="Name (optional)", width=300)
    email_tf = ft.TextField(label="Email", width=300)
    meter = strength_text()
    password_tf = ft.TextField(label="Password", password=True, can_reveal_password=True, width=300,
                               on_change=lambda e: update_strength(meter, e.control.value))
    confirm_pass_tf = ft.TextField(label="Confirm password", password=True, can_reveal_password=True, width=300)

    status_text = ft.Text("", color="red", width=300)

    def set_status(message: str, color: str = "red"):
        status_text.value = message
        status_text.color = color
        status_text.update()

    def handle_register(e):
        email = (email_tf.value or "").strip()
        pwd = password_tf.value or ""
        confirm = confirm_pass_tf.value or ""

        if not email or not pwd:
            set_status("Email and password are required")
            return
        if pwd != confirm:
            set_status("Passwords do not match")
            return
        if len(pwd) < MIN_FORM_PASSWORD_LENGTH:
            set_status(f"Password must be at least {MIN_FORM_PASSWORD_LENGTH} characters long")
            return

        try:
            ctx.session.sign_up_with_password(email, pwd, display_name=(name_tf.value or "").strip() or None)
        except PassVaultError as ex:
            set_status(user_message(ex))
            return

        password_tf.value = ""
        confirm_pass_tf.value = ""
        page.update()
        set_status("Registration successful! We've sent a verification email to your address. "
                   "Please click the link in it, then sign in.", color="green")

    return ft.View(
        "/register",
        controls=[
            ft.Container(
                content=ft.Column(
                    [
                        ft.Icon(name="person_add", size=80, color="green"),
                        ft.Text("Create an account", size=24, weight=ft.FontWeight.BOLD),
                        ft.Text("Your passwords, available wherever you sign in", size=14, color="grey"),
                        ft.Container(height=20),

                        name_tf,
                        email_tf,
                        password_tf,
                        meter,
                        confirm_pass_tf,

                        ft.Container(height=10),
                        status_text,

                        ft.Container(height=20),
                        ft.ElevatedButton("Sign up", on_click=handle_register, width=300, height=45),
                        ft.TextButton("Back to sign in", on_click=lambda e: page.go("/login"))
                    ],
                    horizontal_alignment=ft.CrossAxisAlignment.CENTER,
                ),
                alignment=ft.alignment.center,
                expand=True,
                padding=30
            )
        ]
    )
