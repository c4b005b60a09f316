"""tradesbook.ie backend - TV installation marketplace API"""
