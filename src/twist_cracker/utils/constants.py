"""Curve and solver constants for Twist Cracker."""

# -- secp256k1: y^2 = x^3 + 7 over F_p --
SECP256K1_P: int = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEFFFFFC2F
SECP256K1_N: int = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141
SECP256K1_A: int = 0
SECP256K1_B: int = 7
SECP256K1_GX: int = 0x79BE667EF9DCBBAC55A06295CE870B07029BFCDB2DCE28D959F2815B16F81798
SECP256K1_GY: int = 0x483ADA7726A3C4655DA4FBFC0E1108A8FD17B448A68554199C47D08FFB10D4B8

# -- Quadratic twist: y^2 = x^3 - 7, |E| + |E'| = 2p + 2 --
TWIST_B: int = (SECP256K1_P - SECP256K1_B) % SECP256K1_P
TWIST_ORDER: int = 2 * (SECP256K1_P + 1) - SECP256K1_N

# -- Encoding widths (hex digits) --
FIELD_HEX_WIDTH: int = 64
PRIVATE_KEY_HEX_WIDTH: int = 64

# -- Discrete log tier thresholds --
EXHAUSTIVE_LIMIT: int = 100
BSGS_LIMIT: int = 10_000
KANGAROO_LIMIT: int = 1_000_000

# -- Kangaroo tuning --
KANGAROO_TAME_FACTOR: float = 4.0  # tame walk = factor * sqrt(q) steps
KANGAROO_WILD_FACTOR: float = 2.0  # wild budget = factor * sqrt(q) + extra
KANGAROO_WILD_EXTRA: int = 256
DISTINGUISHED_MASK: int = 0x3  # x mod 4 == 0
CANCEL_CHECK_INTERVAL: int = 256

# -- Factoring the twist order --
SMALL_FACTOR_BOUND: int = KANGAROO_LIMIT

# -- Reference fragment configuration (eight primes in 101..137) --
REFERENCE_MODULI: tuple[int, ...] = (101, 103, 107, 109, 113, 127, 131, 137)
REFERENCE_REMAINDERS: tuple[int, ...] = (45, 67, 89, 94, 51, 83, 112, 59)

# -- Twist generator search --
GENERATOR_SAMPLE_POINTS: int = 8  # points whose orders fix the group exponent
GENERATOR_SEARCH_LIMIT: int = 256  # x-coordinates tried for a point of that order
