"""Business logic services: sessions, access policy, file operations, tunnel bring-up."""
