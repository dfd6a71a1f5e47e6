"""CommentKit: embeddable comments with cross-origin trust and passwordless auth."""
