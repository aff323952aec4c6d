"""slotkeeper: slot reservation and booking-completion engine."""
