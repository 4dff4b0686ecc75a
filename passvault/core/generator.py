import secrets
import string

from pydantic import BaseModel

from .errors import InvalidConfiguration

LOWERCASE = string.ascii_lowercase
UPPERCASE = string.ascii_uppercase
NUMBERS = string.digits
SYMBOLS = "!@#$%^&*()_+-=[]{}|;:,.<>?"
AMBIGUOUS = "il1Lo0O"

DEFAULT_LENGTH = 16


class GeneratorOptions(BaseModel):
    include_uppercase: bool = True
    include_lowercase: bool = True
    include_numbers: bool = True
    include_symbols: bool = True
    exclude_ambiguous: bool = False


def character_classes(options: GeneratorOptions) -> list[str]:
    """Enabled classes in pool order; lowercase is the base set."""
    classes = []
    if options.include_lowercase: classes.append(LOWERCASE)
    if options.include_uppercase: classes.append(UPPERCASE)
    if options.include_numbers:   classes.append(NUMBERS)
    if options.include_symbols:   classes.append(SYMBOLS)
    if options.exclude_ambiguous:
        classes = ["".join(c for c in chars if c not in AMBIGUOUS) for chars in classes]
    return [chars for chars in classes if chars]


def generate_password(length: int = DEFAULT_LENGTH,
                      options: GeneratorOptions | None = None) -> str:
    options = options or GeneratorOptions()
    if isinstance(length, bool) or not isinstance(length, int) or length <= 0:
        raise InvalidConfiguration(f"Length must be a positive integer, got {length!r}")

    classes = character_classes(options)
    if not classes:
        raise InvalidConfiguration("At least one character type must be selected")

    pool = "".join(classes)
    password_chars = [secrets.choice(pool) for _ in range(length)]

    # Best effort: a later class may overwrite the only character of an earlier one.
    for chars in classes:
        if not any(c in chars for c in password_chars):
            password_chars[secrets.randbelow(length)] = secrets.choice(chars)

    return "".join(password_chars)


if __name__ == "__main__":
    print(f"Default: {generate_password()}")
    print(f"Short: {generate_password(length=4)}")
    print(f"No ambiguous: {generate_password(options=GeneratorOptions(exclude_ambiguous=True))}")
