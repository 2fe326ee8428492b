from agentchain import Chain

chain = Chain.from_yaml("chain.yaml")
result = chain.run()
print(result.output)
for step in result.steps:
    group = f" (group {step.execution_group})" if step.execution_group is not None else ""
    print(f"  [{step.index}] {step.name}: {step.status.value}{group}")
print(f"\nSession: {result.session_id}")
print(f"Total cost: ${result.cost.total_cost:.4f}")
