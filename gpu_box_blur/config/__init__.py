# Configuration package.
