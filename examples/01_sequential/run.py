from agentchain import Chain

chain = Chain.from_yaml("chain.yaml")
result = chain.run()
print(result.output)
print(f"\nTotal cost: ${result.cost.total_cost:.4f}")
print(f"Duration: {result.duration:.1f}s")
print(f"Steps: {len(result.steps)}")
