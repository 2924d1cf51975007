"""Stratum - versioned headless content with releases and hierarchical locks."""
