"""
ABI fragment of the soulbound credential contract.
"""

SBT_ABI = [
    {
        "type": "function",
        "name": "owner",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "address"}],
    },
    {
        "type": "function",
        "name": "mint",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "student", "type": "address"}],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "mintBatch",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "students", "type": "address[]"}],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "revoke",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "tokenId", "type": "uint256"}],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "tokenIdOf",
        "stateMutability": "view",
        "inputs": [{"name": "student", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "type": "function",
        "name": "tokenURI",
        "stateMutability": "view",
        "inputs": [{"name": "tokenId", "type": "uint256"}],
        "outputs": [{"name": "", "type": "string"}],
    },
]
