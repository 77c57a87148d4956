"""storysync: engagement state synchronization for the story reader client."""
