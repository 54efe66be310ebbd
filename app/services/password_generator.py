import secrets
import string

UPPERCASE = string.ascii_uppercase
LOWERCASE = string.ascii_lowercase
NUMBERS = string.digits
SYMBOLS = "!@#$%^&*()_+-=[]{}|;:,.<>?"

MIN_LENGTH = 4
MAX_LENGTH = 64

_random = secrets.SystemRandom()


def generate_password(
    length: int = 12,
    uppercase: bool = True,
    lowercase: bool = True,
    numbers: bool = True,
    symbols: bool = False,
) -> str:
    """Random share password holding at least one character of each selected class."""
    length = max(MIN_LENGTH, min(length, MAX_LENGTH))
    classes = [chars for chars, on in ((UPPERCASE, uppercase), (LOWERCASE, lowercase),
                                       (NUMBERS, numbers), (SYMBOLS, symbols)) if on]
    if not classes:
        classes = [LOWERCASE]

    alphabet = "".join(classes)
    chars = [secrets.choice(c) for c in classes]
    chars += [secrets.choice(alphabet) for _ in range(length - len(chars))]
    _random.shuffle(chars)
    return "".join(chars)


def password_strength(password: str) -> str:
    if not password:
        return ""
    score = 0
    if len(password) >= 8:
        score += 1
    if len(password) >= 12:
        score += 1
    if any(c in LOWERCASE for c in password):
        score += 1
    if any(c in UPPERCASE for c in password):
        score += 1
    if any(c in NUMBERS for c in password):
        score += 1
    if any(not c.isalnum() for c in password):
        score += 1

    if score <= 2:
        return "Weak"
    if score <= 4:
        return "Medium"
    return "Strong"
