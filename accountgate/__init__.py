"""Account approval and credential issuance service."""
