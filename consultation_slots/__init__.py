"""Consultation slot availability: slot verdicts, regional pricing and time labels."""
