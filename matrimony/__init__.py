"""Connection gating and contact-information filtering for private messaging."""
