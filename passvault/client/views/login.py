# passvault/client/views/login.py
import flet as ft

from passvault.client.state import AppContext
from passvault.core.errors import EmailNotVerified, PassVaultError, user_message


def LoginView(page: ft.Page, ctx: AppContext):
    email_field = ft.TextField(label="Email", width=300, autofocus=True)
    pass_field = ft.TextField(
        label="Password",
        password=True,
        can_reveal_password=True,
        width=300,
        on_submit=lambda e: handle_sign_in(e)
    )
    error_text = ft.Text("", color="red", width=300)
    resend_button = ft.TextButton("Resend verification email", visible=False,
                                  on_click=lambda e: handle_resend(e))

    def show_error(message: str, allow_resend: bool = False):
        error_text.value = message
        resend_button.visible = allow_resend
        error_text.update()
        resend_button.update()

    def handle_sign_in(e):
        email = (email_field.value or "").strip()
        password = pass_field.value or ""
        if not email or not password:
            show_error("Please enter your email and password")
            return

        show_error("")
        try:
            ctx.session.sign_in_with_password(email, password)
            # Navigation happens when the SessionChanged event arrives
        except EmailNotVerified as ex:
            show_error(user_message(ex), allow_resend=True)
        except PassVaultError as ex:
            show_error(user_message(ex))

    def handle_oauth(e):
        show_error("")
        try:
            ctx.session.sign_in_with_oauth()
        except PassVaultError as ex:
            show_error(user_message(ex))

    def handle_resend(e):
        try:
            ctx.session.resend_verification(email_field.value or "", pass_field.value or "")
            page.open(ft.SnackBar(ft.Text("Verification email sent. Please check your inbox.")))
        except PassVaultError as ex:
            show_error(user_message(ex))

    def show_reset_dialog(e):
        reset_email_tf = ft.TextField(label="Email", value=email_field.value or "")
        reset_error = ft.Text("", color="red")

        def send_reset(e):
            email = (reset_email_tf.value or "").strip()
            if not email:
                reset_error.value = "Please enter your email address"
                reset_error.update()
                return
            try:
                ctx.session.send_password_reset(email)
                page.close(dlg)
                page.open(ft.SnackBar(ft.Text("Password reset email sent. Check your inbox.")))
            except PassVaultError as ex:
                reset_error.value = user_message(ex)
                reset_error.update()

        dlg = ft.AlertDialog(
            title=ft.Text("Reset password"),
            content=ft.Column([
                ft.Text("We'll email you a link to reset your password.", size=12, color="grey"),
                reset_email_tf,
                reset_error,
            ], tight=True, width=350),
            actions=[
                ft.TextButton("Cancel", on_click=lambda e: page.close(dlg)),
                ft.ElevatedButton("Send link", on_click=send_reset),
            ],
        )
        page.open(dlg)

    return ft.View(
        "/login",
        controls=[
            ft.Container(
                content=ft.Column(
                    [
                        ft.Icon(name="security", size=80, color="blue"),
                        ft.Container(height=20),
                        ft.Text("Welcome back", size=30, weight=ft.FontWeight.BOLD),
                        ft.Text("Sign in to access your passwords", color="grey", size=14),
                        ft.Container(height=30),

                        email_field,
                        pass_field,
                        error_text,
                        resend_button,
                        ft.Container(height=10),
                        ft.ElevatedButton(text="Sign in", width=300, height=50, on_click=handle_sign_in),
                        ft.OutlinedButton(text="Continue with Google", icon="login", width=300,
                                          on_click=handle_oauth),
                        ft.Row([
                            ft.TextButton("Forgot password?", on_click=show_reset_dialog),
                            ft.TextButton("Create account", on_click=lambda e: page.go("/register")),
                        ], alignment=ft.MainAxisAlignment.CENTER),
                    ],
                    horizontal_alignment=ft.CrossAxisAlignment.CENTER,
                ),
                alignment=ft.alignment.center,
                expand=True
            )
        ]
    )
