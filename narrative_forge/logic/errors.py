"""
Exception types raised by the narrative logic core
"""


class LogicError(Exception):
    """Base class for all narrative logic errors"""


class RegistrationError(LogicError):
    """A registry entry was rejected before insertion"""


class WiringError(LogicError):
    """An action, placeholder or condition was used without being registered"""


class AuthoringError(LogicError):
    """Authored text could not be interpreted (bad condition, brace, JSON, template...)"""
