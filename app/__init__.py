"""AgroIkemba inventory reservation service"""
