# Utils module for the Cilium agent
