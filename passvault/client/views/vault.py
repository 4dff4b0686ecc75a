# passvault/client/views/vault.py
import logging
from typing import Optional

import flet as ft

from passvault.client.state import AppContext
from passvault.client.views.widgets import strength_text, update_strength
from passvault.core.errors import PassVaultError, user_message
from passvault.core.events import CredentialsSnapshot, ErrorEvent, SessionChanged
from passvault.core.filters import ALL_CATEGORIES, categories, filter_records
from passvault.core.generator import GeneratorOptions, generate_password
from passvault.core.models import CATEGORIES, DEFAULT_CATEGORY, CredentialDraft, CredentialPatch, CredentialRecord

logger = logging.getLogger(__name__)


def VaultView(page: ft.Page, ctx: AppContext):
    # Filter state; the visible list is recomputed from ctx.records on every render
    filters_ref = {"query": "", "category": ALL_CATEGORIES, "favorites_only": False}

    search_field = ft.TextField(
        prefix_icon="search",
        hint_text="Search title, username or website...",
        expand=True,
        on_change=lambda e: set_filter("query", e.control.value or "")
    )
    favorites_switch = ft.Switch(label="Favorites", value=False,
                                 on_change=lambda e: set_filter("favorites_only", e.control.value))
    category_row = ft.Row(wrap=True, spacing=5)
    summary_text = ft.Text("", size=12, color="grey")
    items_list_view = ft.ListView(expand=True, spacing=10, padding=20)

    def set_filter(key, value):
        filters_ref[key] = value
        render()

    def render():
        records = ctx.records
        visible = filter_records(records, filters_ref["query"], filters_ref["category"],
                                 filters_ref["favorites_only"])

        category_row.controls = [
            ft.Chip(
                label=ft.Text(c.capitalize()),
                selected=filters_ref["category"] == c,
                on_select=lambda e, c=c: set_filter("category", c),
            )
            for c in categories(records)
        ]
        summary_text.value = f"Showing {len(visible)} of {len(records)} passwords"

        items_list_view.controls.clear()
        if ctx.last_error is not None and not records:
            items_list_view.controls.append(ft.Column([
                ft.Text(user_message(ctx.last_error.error), color="red"),
                ft.ElevatedButton("Try again", icon="refresh", on_click=lambda e: ctx.resubscribe()),
            ], horizontal_alignment=ft.CrossAxisAlignment.CENTER))
        elif not visible:
            message = "No passwords yet. Click Add to create one." if not records else "No passwords match your search."
            items_list_view.controls.append(ft.Text(message, text_align=ft.TextAlign.CENTER, color="grey"))

        for item in visible:
            items_list_view.controls.append(build_tile(item))
        page.update()

    def build_tile(item: CredentialRecord) -> ft.Container:
        subtitle_controls = [ft.Text(item.username or item.email, size=12, color="grey")]
        subtitle_controls.append(
            ft.Container(
                content=ft.Text(item.category, size=10, color="white"),
                bgcolor="blue",
                padding=ft.padding.symmetric(horizontal=4, vertical=1),
                border_radius=4
            )
        )

        return ft.Container(
            content=ft.Row(
                controls=[
                    ft.IconButton(
                        icon="star" if item.favorite else "star_border",
                        icon_color="amber" if item.favorite else "grey",
                        tooltip="Favorite",
                        on_click=lambda e, r=item: toggle_favorite(r),
                    ),
                    ft.Container(
                        content=ft.Column(
                            [
                                ft.Text(item.title, weight=ft.FontWeight.BOLD, size=16),
                                ft.Row(subtitle_controls, spacing=5),
                            ], expand=True, spacing=2
                        ),
                        expand=True, on_click=lambda e, r=item: show_edit_dialog(r),
                    ),
                    ft.IconButton(icon="copy", tooltip="Copy password",
                                  on_click=lambda e, p=item.password: copy_to_clipboard(p)),
                    ft.IconButton(icon="delete", tooltip="Delete", icon_color="red",
                                  on_click=lambda e, r=item: confirm_delete(r)),
                ],
                alignment=ft.MainAxisAlignment.START,
            ),
            padding=10, border=ft.border.all(1, "grey300"), border_radius=10, bgcolor="white",
        )

    def notify(message: str):
        page.open(ft.SnackBar(ft.Text(message)))

    def copy_to_clipboard(password: str):
        page.set_clipboard(password)
        notify("Password copied to clipboard!")

    def toggle_favorite(item: CredentialRecord):
        if ctx.store is None:
            return
        try:
            ctx.store.toggle_favorite(item.id, item.favorite)
        except PassVaultError as ex:
            notify(f"Failed to update favorite status. {user_message(ex)}")

    def confirm_delete(item: CredentialRecord):
        def do_delete(e):
            if ctx.store is None:
                return
            try:
                ctx.store.delete(item.id)
                page.close(confirm_dlg)
                notify("Password deleted successfully!")
            except PassVaultError as ex:
                notify(f"Failed to delete password. {user_message(ex)}")

        confirm_dlg = ft.AlertDialog(
            title=ft.Text("Delete password"),
            content=ft.Text(f"Delete '{item.title}'? This cannot be undone."),
            actions=[
                ft.TextButton("Cancel", on_click=lambda e: page.close(confirm_dlg)),
                ft.ElevatedButton("Delete", color="white", bgcolor="red", on_click=do_delete),
            ],
        )
        page.open(confirm_dlg)

    # --- add / edit ---
    def show_edit_dialog(item: Optional[CredentialRecord] = None):
        is_edit = item is not None
        draft = item.to_draft() if item else CredentialDraft()

        title_tf = ft.TextField(label="Title", value=draft.title)
        username_tf = ft.TextField(label="Username", value=draft.username)
        email_tf = ft.TextField(label="Email (optional)", value=draft.email)
        meter = strength_text()
        password_tf = ft.TextField(label="Password", can_reveal_password=True, password=True,
                                   value=draft.password, expand=True,
                                   on_change=lambda e: update_strength(meter, e.control.value))
        website_tf = ft.TextField(label="Website", value=draft.website)
        notes_tf = ft.TextField(label="Notes", value=draft.notes, multiline=True, min_lines=2)
        # Keep categories written by other clients selectable
        category_options = CATEGORIES + ([draft.category] if draft.category not in CATEGORIES else [])
        category_dd = ft.Dropdown(
            label="Category",
            value=draft.category,
            options=[ft.dropdown.Option(text=c, key=c) for c in category_options],
        )
        error_text = ft.Text("", color="red")

        # Generator options
        length_slider = ft.Slider(min=8, max=50, divisions=42, label="{value}",
                                  value=ctx.settings.DEFAULT_PASSWORD_LENGTH)
        upper_cb = ft.Checkbox(label="A-Z", value=True)
        lower_cb = ft.Checkbox(label="a-z", value=True)
        numbers_cb = ft.Checkbox(label="0-9", value=True)
        symbols_cb = ft.Checkbox(label="!@#", value=True)
        ambiguous_cb = ft.Checkbox(label="No look-alikes", value=False)

        def generate_random_pwd(e):
            options = GeneratorOptions(
                include_uppercase=bool(upper_cb.value),
                include_lowercase=bool(lower_cb.value),
                include_numbers=bool(numbers_cb.value),
                include_symbols=bool(symbols_cb.value),
                exclude_ambiguous=bool(ambiguous_cb.value),
            )
            try:
                pwd = generate_password(int(length_slider.value or 16), options)
            except PassVaultError as ex:
                error_text.value = user_message(ex)
                error_text.update()
                return
            password_tf.value = pwd
            password_tf.update()
            update_strength(meter, pwd)
            page.set_clipboard(pwd)
            notify("Password generated and copied to your clipboard.")

        def save_item(e):
            fields = dict(
                title=title_tf.value or "",
                username=username_tf.value or "",
                email=email_tf.value or "",
                password=password_tf.value or "",
                website=website_tf.value or "",
                notes=notes_tf.value or "",
                category=category_dd.value or DEFAULT_CATEGORY,
            )
            if ctx.store is None:
                return
            try:
                if item is not None:
                    ctx.store.update(item.id, CredentialPatch(**fields))
                else:
                    ctx.store.create(CredentialDraft(**fields))
            except PassVaultError as ex:
                error_text.value = user_message(ex)
                error_text.update()
                return
            page.close(dlg)
            notify("Password updated successfully!" if is_edit else "Password added successfully!")

        update_strength(meter, draft.password)
        dlg = ft.AlertDialog(
            title=ft.Text("Edit password" if is_edit else "Add new password"),
            content=ft.Column([
                title_tf,
                username_tf,
                email_tf,
                ft.Row(
                    [
                        password_tf,
                        ft.IconButton(icon="refresh", tooltip="Generate", on_click=generate_random_pwd)
                    ],
                    alignment=ft.MainAxisAlignment.SPACE_BETWEEN
                ),
                meter,
                ft.ExpansionTile(
                    title=ft.Text("Generator options", size=12),
                    controls=[
                        ft.Text("Length", size=12),
                        length_slider,
                        ft.Row([upper_cb, lower_cb, numbers_cb, symbols_cb], wrap=True),
                        ambiguous_cb,
                    ],
                ),
                website_tf,
                category_dd,
                notes_tf,
                error_text,
            ], tight=True, width=420, scroll=ft.ScrollMode.AUTO),
            actions=[ft.TextButton("Cancel", on_click=lambda e: page.close(dlg)),
                     ft.ElevatedButton("Save", on_click=save_item)],
        )
        page.open(dlg)

    # --- account ---
    def show_account_dialog(e):
        identity = ctx.identity
        if identity is None:
            return
        name_tf = ft.TextField(label="Display name", value=identity.display_name or "")

        def save_profile(e):
            try:
                ctx.session.update_profile(display_name=(name_tf.value or "").strip())
                page.close(account_dlg)
                notify("Profile updated")
            except PassVaultError as ex:
                notify(user_message(ex))

        account_dlg = ft.AlertDialog(
            title=ft.Text("Account"),
            content=ft.Column([
                ft.ListTile(
                    leading=ft.Icon(name="person", color="blue"),
                    title=ft.Text(identity.display_name or identity.email, weight=ft.FontWeight.BOLD),
                    subtitle=ft.Text(identity.email),
                ),
                name_tf,
                ft.Divider(),
                ft.Text("Passwords are stored on the server without client-side encryption.",
                        size=12, color="grey"),
            ], tight=True, width=350),
            actions=[
                ft.TextButton("Close", on_click=lambda e: page.close(account_dlg)),
                ft.ElevatedButton("Save", on_click=save_profile),
            ],
        )
        page.open(account_dlg)

    def sign_out(e):
        try:
            ctx.session.sign_out()
        except PassVaultError as ex:
            notify(f"Error signing out: {user_message(ex)}")

    view = None

    def on_event(event):
        # Drop the listener once this view is no longer shown
        if view not in page.views:
            ctx.remove_listener(on_event)
            return
        if isinstance(event, (CredentialsSnapshot, ErrorEvent, SessionChanged)):
            render()

    view = ft.View(
        "/vault",
        controls=[
            ft.AppBar(
                title=ft.Text("My Passwords"),
                bgcolor="surfaceVariant",
                actions=[
                    ft.IconButton(icon="account_circle", icon_color="blue", tooltip="Account",
                                  on_click=show_account_dialog),
                    ft.IconButton(icon="logout", tooltip="Sign out", on_click=sign_out),
                ]
            ),
            ft.Container(ft.Row([search_field, favorites_switch]), padding=10),
            ft.Container(category_row, padding=ft.padding.symmetric(horizontal=10)),
            ft.Container(summary_text, padding=ft.padding.symmetric(horizontal=20)),
            items_list_view,
        ],
        floating_action_button=ft.FloatingActionButton(
            icon="add",
            on_click=lambda e: show_edit_dialog(None),
            text="Add"
        )
    )
    ctx.add_listener(on_event)
    render()
    return view
