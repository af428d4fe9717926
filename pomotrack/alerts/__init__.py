"""Sound and desktop notifications for timer phase changes."""
