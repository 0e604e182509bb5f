"""Yearn v2 vault specific reads."""
