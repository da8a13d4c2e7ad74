async def run_action(nango, input=None):
    return nango.get(endpoint="/user")
