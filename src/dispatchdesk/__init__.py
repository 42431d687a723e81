"""Emergency alert triage, incident provisioning and station referrals."""

import logging

# The Azure SDK logs every HTTP request at INFO.
logging.getLogger("azure").setLevel(logging.WARNING)
