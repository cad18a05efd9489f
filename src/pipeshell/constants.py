"""
Constants and configuration for pipeshell
"""

# ============================================================================
# PIPE CHANNEL
# ============================================================================
# Capacity (in bytes) of the channel created by ExecutionUnit.pipe().
# A producer writing into a full channel blocks until the consumer drains it.
BUFFER_SIZE = 2048

# Encoding used when a byte channel or file is wrapped for line-oriented I/O.
DEFAULT_ENCODING = 'utf-8'


# ============================================================================
# GLOB EXPANSION
# ============================================================================
# Characters that turn an argument into a pattern.
#   '*' → zero or more characters (within one path segment)
#   '?' → exactly one character
# Every other character of a pattern is literal.
WILDCARD_CHARS = ('*', '?')


# ============================================================================
# NETWORK DOWNLOAD (wget)
# ============================================================================
DOWNLOAD_CHUNK_SIZE = 1024

# (connect, read) seconds, passed straight to requests
DOWNLOAD_TIMEOUT = (30, 300)
