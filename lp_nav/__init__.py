"""
lp_nav - сканер и оценка concentrated-liquidity NFT позиций.
"""
