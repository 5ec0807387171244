"""Domain layer - session models and exceptions"""
