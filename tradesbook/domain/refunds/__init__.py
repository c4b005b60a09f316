"""Performance refunds - star-rated lead fee rebates"""
