"""Legacy database discovery, selection and migration."""
