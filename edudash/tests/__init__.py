"""Tests for the EduDash assessment service."""
