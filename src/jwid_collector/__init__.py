"""J-WID collector: look up songs in the JASRAC work registry and export usage reports."""
