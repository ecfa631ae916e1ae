"""Career coach chat: streaming AI chat with saved conversations."""
