"""Service composition, HTTP boundary and cross-service model push"""
