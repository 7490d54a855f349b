"""Core building blocks shared by all neo-permissions features."""
