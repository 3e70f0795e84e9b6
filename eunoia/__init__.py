# -*- coding: utf-8 -*-
"""Eunoia learning nuggets backend."""
