"""Meetday API - agree on a day to meet with a friend"""
