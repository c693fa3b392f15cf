"""AUTHGUARD UTILS MODULE"""
