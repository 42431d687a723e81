"""Station-to-station referral workflow."""
