"""Entity store and credit ledger for the email-marketing back office."""
