"""LinkVault: secure, short-lived sharing of text and files."""
