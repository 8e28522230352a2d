"""openidgate - delegate login to an OpenID provider without storing passwords."""

__version__ = "0.1.0"
