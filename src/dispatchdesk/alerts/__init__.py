"""Emergency alert intake and triage."""
