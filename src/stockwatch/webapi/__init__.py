"""HTTP surface for stockwatch."""
