"""KITA Spaces coworking backend."""
