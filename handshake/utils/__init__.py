"""Shared utilities: configuration, HTTP body decoding and background serving."""
