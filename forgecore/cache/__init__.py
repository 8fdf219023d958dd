"""Cache layer: key mapping, payload codec, Redis store adapter."""
