"""Command line entry points for paperclip-client."""
