"""Twist Cracker -- invalid-curve key fragment recovery for secp256k1.

Detects public keys that lie on the quadratic twist of secp256k1, solves
the discrete logarithm in each small subgroup of the twist, and combines
the resulting fragments with the Chinese Remainder Theorem.
"""

from __future__ import annotations

__version__ = "0.1.0"

__all__ = ["__version__"]
