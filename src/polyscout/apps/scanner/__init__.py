"""Opportunity scanner and single-position paper monitor."""
