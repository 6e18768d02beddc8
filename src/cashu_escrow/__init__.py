"""cashu-escrow: escrow trades with ecash tokens over an identity-addressed relay network."""

__version__ = "0.1.0"
