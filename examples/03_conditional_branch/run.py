from agentchain import Chain

chain = Chain.from_yaml("chain.yaml")
result = chain.run()
for step in result.skipped_steps:
    print(f"Skipped {step.name}: {step.skip_reason}")
print(result.output)
