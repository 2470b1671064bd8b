"""Account records and the relation tables they own."""
