# Small controls shared by the register and vault views
import flet as ft

from passvault.core.strength import StrengthLabel, check_password_strength

LABEL_COLORS = {
    StrengthLabel.VERY_WEAK: "red",
    StrengthLabel.WEAK: "orange",
    StrengthLabel.MODERATE: "amber",
    StrengthLabel.STRONG: "green",
}


def strength_text() -> ft.Text:
    return ft.Text("", size=12, width=300)


def update_strength(control: ft.Text, password: str):
    report = check_password_strength(password or "")
    control.value = f"{report.label.value} - {report.suggestions[0]}" if password else ""
    control.color = LABEL_COLORS[report.label]
    if control.page:
        control.update()
