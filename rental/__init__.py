"""HotelRental - 退房结算与持久化层"""
