# -*- coding: utf-8 -*-
"""Bearer token verification for the nugget endpoints."""
